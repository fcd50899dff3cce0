"""Pure domain layer: actors, recurrence arithmetic, balance deltas, DTOs."""
