"""Agent implementations"""
