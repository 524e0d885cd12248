"""
Administrative HTTP surface: health and manual sync triggers.
"""
