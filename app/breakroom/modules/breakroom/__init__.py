"""
Breakroom dashboard: a user's grid of blocks (widgets).

- Blocks carry default geometry used the first time a breakpoint is rendered
- Hand-arranged geometry is saved per column count (5/4/3/2/1 columns)
- Breakpoints without saved geometry are filled by the greedy packer in layout.py
"""
