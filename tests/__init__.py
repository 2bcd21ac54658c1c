"""
Test package for the wilayah mapping application.
"""
