"""
Tab platform: the browser's window/tab management surface and event feed.

- base: Tab data, tab events and the TabPlatform interface
- memory: in-process browser model
- ws_platform: browser extension connected over WebSocket
"""
