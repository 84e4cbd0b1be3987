"""hicards: FSRS spaced-repetition scheduling for highlight flashcards."""

__version__ = "0.1.0"
