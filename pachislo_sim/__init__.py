"""
Pachislo Session Simulator

Core modules:
- models: game states, lottery results, commands and their wire shapes
- config: immutable ball-economy and probability parameters
- lottery: pure draw -> outcome resolution
- engine: command application, state transitions and event emission
- slots: reel symbols shown for a lottery result (presentation only)
- driver: thin command-source loop around the engine
"""
