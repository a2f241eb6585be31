"""Rewards app package: tasks that earn points and the reward catalogue."""
