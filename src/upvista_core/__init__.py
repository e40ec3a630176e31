"""Upvista core: polymorphic posts and feed assembly."""
