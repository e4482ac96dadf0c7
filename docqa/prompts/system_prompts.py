"""
Centralized prompts.

Production rule:
NEVER hardcode prompts inside workflow or model client.
Always import from here.
"""


# Stateless ask: one user message, {context} = retrieved chunks, {input} = question
QA_PROMPT_TEMPLATE = """Use the following pieces of context to answer the question at the end.
If you don't know the answer based on the context provided, just say that you don't know, don't try to make up an answer.
Always cite which document or section your answer comes from when possible.

Context:
{context}

Question: {input}

Helpful Answer:"""


# History-aware ask, step 1: rewrite the latest question into a standalone query
CONTEXTUALIZE_QUESTION_SYSTEM_PROMPT = """Given a chat history and the latest user question
which might reference context in the chat history, formulate a standalone question
which can be understood without the chat history. Do NOT answer the question,
just reformulate it if needed and otherwise return it as is."""


# History-aware ask, step 2: system message; history and question follow as turns
QA_SYSTEM_PROMPT = """Use the following pieces of context to answer the question at the end.
If you don't know the answer based on the context provided, just say that you don't know, don't try to make up an answer.
Always cite which document or section your answer comes from when possible.

Context:
{context}"""


DOCUMENT_SEPARATOR = "\n\n"
