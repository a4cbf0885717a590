"""
Star Sums - a timed single-digit addition game played through Discord.
"""
