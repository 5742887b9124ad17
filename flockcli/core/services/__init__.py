"""Application services driving the pull (paged/bulk) and push (stream) paths."""
