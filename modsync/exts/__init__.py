"""Extensions loaded by the bot."""
