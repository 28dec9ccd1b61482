"""
Art gallery: per-user public gallery page plus artwork uploads.
"""
