"""Unified command-line interface for slipscan.

Usage:
    slipscan parse-text <file|->
    slipscan normalize-date <text> [--scan]
    slipscan scan <image> [--no-ai] [--save] [--allow-duplicate]
    slipscan list [--from DATE] [--to DATE] [--items]
    slipscan check-duplicate <datetime> [total]
    slipscan serve [--host] [--port]
"""
