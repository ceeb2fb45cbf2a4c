# Flowzik: Kanban board state and the automation rule engine that reacts to it.
