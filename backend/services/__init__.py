"""
Services module for external providers (Veo, Text-to-Speech, S3)
"""
