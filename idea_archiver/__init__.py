"""
Idea Archiver - daily webpage screenshots archived by date and forwarded to a
chat webhook.
"""
