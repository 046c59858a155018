"""
Balance advisor — compares the two sorters' chart shares and suggests
moving one SKU when the difference is critical.

Modules:
  imbalance  — AdvisorState construction, imbalance detection, priority
  advisor    — ImbalanceAdvisor (hold / move decision)
  enrichment — Optional local LLM (Ollama) that rewords or overrides advice
"""
