"""Segments that collect the data shown in the status line: basic, context window, git and usage."""