"""
Iftar Tracker service.

This package provides a FastAPI application over a hosted catalog of
mosques serving iftar, with crowd-sourced credibility votes, search and
map markers. Persistence lives in the backend service; this package
fetches, merges, counts and ranks.
"""
