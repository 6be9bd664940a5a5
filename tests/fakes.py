"""Stand-ins for the external collaborators of the moderation gateway."""


class StaticGenerator:
    """Text generator that answers with a fixed reply and records prompts."""

    def __init__(self, reply="Hello from the study bot"):
        self.reply = reply
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        return self.reply


class FailingGenerator:
    def generate(self, prompt):
        raise RuntimeError("quota exceeded")


class WordListFilter:
    def __init__(self, words=("darn",)):
        self.words = {w.lower() for w in words}

    def contains_profanity(self, text):
        return any(w in self.words for w in text.lower().split())
