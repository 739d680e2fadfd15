"""morphoscan.io

Line-oriented text formats shared with the models: parameter files and
scan range files. Both use ``name==value`` lines and ``#`` comments.
"""
