"""Scrolling CPU usage graph for status bars."""
