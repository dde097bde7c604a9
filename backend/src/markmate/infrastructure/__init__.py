"""Infrastructure layer - persistence, security, queue and portal adapters"""
