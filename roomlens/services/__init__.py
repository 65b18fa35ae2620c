"""
Provider clients and pipeline services
"""
