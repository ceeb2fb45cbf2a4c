# Board state: the entity store that automations observe and mutate
#
# Components:
#   schema.py - Data model (Card, Column, Board, Label, Subtask, Priority)
#   store.py  - In-memory observable store with synchronous notifications
