"""
Pipeline — one monitoring cycle (fetch, build, diff, persist, export, advise).
"""
