"""
Pydantic schemas for spatial analysis, design suggestions, renders and products
"""
