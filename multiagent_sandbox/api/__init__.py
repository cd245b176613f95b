"""API surfaces"""
