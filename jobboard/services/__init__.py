"""
Services - delivery channels, payments, alerts and document storage.
"""
