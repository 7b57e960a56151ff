"""
Services Layer

Pure engine services (records, score parsing, standings, bracket
generation, advancement, placements, league aggregation, integrity audit):
- Accept engine records, return engine records
- Do NOT perform I/O or import SQLModel models
- Raise ProgressionError subclasses on failed preconditions

Store services (knockout_store, league_store) read a snapshot through a
Session, call the engine, and write the result in one transaction.
"""
