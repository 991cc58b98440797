"""
rigstat services

- device/ - Miner API client, reading codec, poll loop
- spool/ - Spool directory, collector uploader, sweeper
- agent.py - Wires the components together and handles shutdown
"""
