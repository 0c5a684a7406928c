"""Visualizer package - Rich terminal views for release plans."""

from .plan_view import render_plan, render_plan_list, render_save_report

__all__ = [
	"render_plan",
	"render_plan_list",
	"render_save_report",
]
