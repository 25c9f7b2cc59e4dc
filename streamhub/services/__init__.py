"""
Services package for StreamHub

This package contains all business logic and service layer components.
"""
