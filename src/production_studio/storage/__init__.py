"""Cloud storage helpers"""
