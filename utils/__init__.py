"""
Pure helpers: geo distance, descriptive statistics, text normalization.
"""
