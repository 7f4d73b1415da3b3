"""Command-line interface for Qollect"""
