"""
Test-result reporting: runs, suites and cases pushed by CI reporters
(API key) and browsed by signed-in users.
"""
