"""Decision and lookup services"""
