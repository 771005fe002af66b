"""Prompts Ralph sends to the agent on every iteration."""

LOOP_PROMPT = """{prompt}

You are running inside an iterative loop: this same prompt is sent to you
again after every response (iteration {iteration} of at most {max_iterations}).
Your previous work is preserved in the files of this repository.

When the task is fully complete and verified, output the following on a
line of its own, with nothing else on that line:

<promise>{promise}</promise>

Only output it when the task is truly done. Never output it to describe,
quote, or plan it.
"""

TASKS_SECTION = """
## Tasks

The task list is stored in {tasks_file}.
Current task: {current}
When an item is finished, mark it done by changing "- [ ]" to "- [x]".
Output the completion promise only when every item is checked.

{tasks}
"""

ALL_TASKS_DONE = "every item is checked; verify the work and output the completion promise"
