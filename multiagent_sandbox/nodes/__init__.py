"""Specialist agents"""
