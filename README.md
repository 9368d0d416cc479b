# browsedaemon

The core of a browser automation daemon, with no browser attached. It keeps
the daemon's shared state, holds its logs and provides the request handlers
that can work without a live page, or with any object that can evaluate
JavaScript. You drive it from your own code.

## Installation

```
pip install browsedaemon
```

To run the test suite:

```
pip install "browsedaemon[test]"
pytest
```

## Modules

- `browsedaemon.logs`
  - `LogBuffer`: a thread-safe FIFO. It holds at most 1000 entries and drops the oldest first. It provides `push`, `drain`, `snapshot` and `len()`.
  - `DaemonLogs`: the `console`, `network` and `dialog` buffers together.
  - `console_entry_from_event`, `exception_entry_from_event`, `response_entry_from_event`, `failure_entry_from_event` and `dialog_entry_from_event`: these turn raw DevTools event payloads (as dictionaries) into `ConsoleLogEntry`, `NetworkLogEntry` and `DialogLogEntry` records.
- `browsedaemon.state`
  - `DaemonState`: all shared state in one object, guarded by its `lock`. It holds:
    - the `ActionTimeline`, which keeps the newest 60 entries;
    - the versioned `RefStore`;
    - the before/after `DiffState`;
    - the `PageRegistry`;
    - the selected frame;
    - the `MockRouteStore`;
    - the `ActionCache`;
    - the `TraceState`.
  - Handlers that fail raise `HandlerError`.
- `browsedaemon.settle`
  - `settle_after_action(page, opts)`: adaptive DOM settling. It installs a mutation counter in the page, polls it along with the URL and, if asked, the focused element. It stops when the page is quiet or the timeout runs out. It reports one of these reasons: `zero_mutation_shortcut`, `url_changed_then_quiet`, `dom_quiet` or `timeout_fallback`.
  - `page` is any object with async `evaluate(expression)` and `url()` methods.
- `browsedaemon.network_mock`
  - `glob_matches`: URL glob matching. `*` matches any run of characters and `?` matches one character. Text between `**` separators must appear in order.
  - `handle_mock_route`, `handle_block_urls` and `handle_clear_routes`: manage the stored routes.
  - `find_route`: picks the first stored route that matches a paused request.
  - `build_fetch_command`: gives the `Fetch.continueRequest`, `Fetch.failRequest` or `Fetch.fulfillRequest` command that answers the request.
- `browsedaemon.pages`: `handle_list_pages`, `handle_close_page` (the last page cannot be closed) and `handle_select_frame` (by name, index or URL pattern).
- `browsedaemon.refs`
  - `parse_ref`: parses refs of the form `@vN:eM`.
  - `store_snapshot`: stores snapshot nodes as `e1`, `e2`, … under a new version.
  - `lookup_ref` and `handle_get_ref`: find a ref in the current snapshot.
  - `annotate_resolution`: adds a `ref_resolution` record to a result.
- `browsedaemon.wait`
  - `handle_wait_for(page, logs, params)` waits for one of these conditions:
    - `delay`
    - `selector_visible`, `selector_hidden`
    - `url_contains`
    - `text_visible`, `text_hidden`
    - `network_idle`
    - `request_completed`
    - `console_message`
    - `element_count`, with thresholds such as `">=3"`, `"==0"` or `"<5"`
    - `region_stable`
  - Helpers: `parse_threshold`, `compare_threshold`, `js_string` and `poll_until`.
- `browsedaemon.timeline`: `handle_timeline(state, params, state_dir)` returns the timeline. If `write_to_disk` is true, it also writes it to `timeline.json`.
- `browsedaemon.visual_diff`
  - `compare_images`: compares two images pixel by pixel against a 0–1 tolerance.
  - `handle_visual_diff(screenshot_bytes, params, baselines_dir)`: compares a PNG screenshot with a named baseline. It creates the baseline when it is missing and writes a diff image when pixels differ.
  - `zoom_output_size`: gives the pixel size of a scaled region.
- `browsedaemon.session`
  - `handle_session_summary`: counts actions, console errors, failed requests and dialogs, and reports the active page.
  - `write_debug_bundle`: writes the console, network and dialog logs, the timeline and the summary as JSON into a timestamped directory.

## Example

```python
from browsedaemon.state import DaemonState
from browsedaemon.logs import DaemonLogs, ConsoleLogEntry
from browsedaemon.session import handle_session_summary

state = DaemonState()
logs = DaemonLogs()

action_id = state.timeline.begin_action("navigate", '{"url":"https://example.com"}', "about:blank")
state.timeline.finish_action(action_id, "https://example.com", "ok", "")

logs.console.push(ConsoleLogEntry(log_type="error", text="boom", timestamp=1.0, url=""))

summary = handle_session_summary(logs, state)
print(summary["actions"]["ok"], summary["console"]["errors"])  # 1 1
```

```python
from browsedaemon.network_mock import glob_matches

glob_matches("**/api/*", "https://example.com/api/users")   # True
glob_matches("**/ads*", "https://example.com/api/data")     # False
```

## What it does not do

- It does not launch or talk to a browser itself. It has no socket server and no command-line program.
- It does not take screenshots, save pages as PDF or switch between pages. Screenshots and page objects come from your own code.
- A debug bundle holds only the logs, the timeline and the summary. It has no screenshot and no accessibility tree.