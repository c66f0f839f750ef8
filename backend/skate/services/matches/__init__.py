"""Match domain services: rules, mutation, disputes and deadlines.

Routes, socket handlers and the background reconciler all reach the
engine through ``MatchService``; the rules module stays free of I/O so
it can be exercised without a database.
"""
