"""Conversation and graph state models"""
