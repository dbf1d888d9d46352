"""Attribution — from debug-info nodes to sized What/Where events.

- Origin: follow abstract-origin / specification chains to the declaration
- Location: code size and What/Where identity of a single node
- Walker: depth-first self-size vs. children-size accounting
"""
