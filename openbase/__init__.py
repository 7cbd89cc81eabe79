"""
Openbase 后端包
"""
