from . import assistant, chat_history, search, tasks_ai
