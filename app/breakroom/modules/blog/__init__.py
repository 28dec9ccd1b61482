"""
Blog records. Authoring lives elsewhere; this module only reads blogs and
published posts to describe shared links.
"""
