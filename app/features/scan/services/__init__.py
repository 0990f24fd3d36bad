"""
Scan Services

Organized by responsibility, in the order a scan flows through them:

1. admission.py - Credit reservation + PENDING scan record, one commit

2. extraction/ - Browser automation
   - page_extractor.py: headless Chrome per scan, network-idle wait, DOM snapshot

3. analysis/ - LLM integration
   - prompt_builder.py: bounded WCAG prompt from a snapshot
   - inference_client.py: OpenAI chat-completions behind a small protocol
   - response_decoder.py: strict JSON decoding (Decoded | Malformed)
   - insight_generator.py: prompt -> model -> decoded result, or the fixed fallback

4. orchestration/ - Job coordination
   - orchestrator.py: drives one scan through its progress checkpoints
   - factory.py: wires the real collaborators for the worker

5. store/ - Persistence
   - scan_store.py: scan state machine, issues, history and dashboard reads

The Celery tasks that call into orchestration live in ../workers.
"""
