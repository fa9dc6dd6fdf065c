"""
Basic usage example for kb-rag.
"""

from kb_rag import CorpusStore, LocalSearchProvider, RagContextOptions, assemble_rag_context, build_rag_prompt
from kb_rag.rag import format_rag_for_prompt

# Load a corpus snapshot (one embedded chunk per JSONL line)
print("Loading corpus...")
store = CorpusStore.load("corpus.jsonl.zst")
provider = LocalSearchProvider(store)

user_id = "user-1"
if not store.is_rag_available(user_id):
    raise SystemExit(f"No embedded documents for {user_id}")

# Assemble context
query = "What is our brand voice?"
result = assemble_rag_context(
    provider,
    user_id,
    query,
    RagContextOptions(categories=("brand", "content"), max_tokens=3000),
)

print(f"\nChunks: {result.chunks_included}  Tokens: {result.tokens_used}  Truncated: {result.truncated}")
for i, source in enumerate(result.sources, 1):
    print(f"{i}. {source.title} ({source.category}) score={source.score:.3f}")

# Prompt segment for the LLM
print("\nPrompt:")
print(build_rag_prompt(result.context, query, result.sources))

# Knowledge-base block for generation prompts
print(format_rag_for_prompt(result))
