"""
banner.py - Startup banner for the injectfix CLI
"""

_BANNER = r"""
  _       _           _    __ _
 (_)_ __ (_) ___  ___| |_ / _(_)_  __
 | | '_ \| |/ _ \/ __| __| |_| \ \/ /
 | | | | | |  __/ (__| |_|  _| |>  <
 |_|_| |_/ |\___|\___|\__|_| |_/_/\_\
       |__/
 GitHub Actions script injection fixer
"""
