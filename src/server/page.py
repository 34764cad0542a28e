INDEX_HTML = """
<!doctype html>
<html>
  <head>
    <meta charset="utf-8" />
    <title>Video Transcriber</title>
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <style>
      body { font-family: system-ui, -apple-system, Segoe UI, Roboto, sans-serif; background: #f3f4f6; display: flex; justify-content: center; padding: 32px; }
      .card { background: #fff; padding: 32px; border-radius: 16px; max-width: 420px; width: 100%; box-shadow: 0 4px 12px rgba(0,0,0,.08); }
      h1, h2 { text-align: center; margin: 0 0 8px; }
      h2 { font-size: 1rem; color: #6b7280; margin-bottom: 24px; }
      .drop { border: 2px dashed #d1d5db; border-radius: 8px; padding: 32px; text-align: center; }
      .drop.active { border-color: #3b82f6; background: #eff6ff; }
      button { padding: 10px 16px; border-radius: 8px; border: 0; cursor: pointer; color: #fff; background: #3b82f6; width: 100%; margin-top: 8px; }
      button:disabled { opacity: .6; cursor: default; }
      progress { width: 100%; }
      #result { background: #f9fafb; padding: 12px; border-radius: 8px; max-height: 240px; overflow-y: auto; white-space: pre-wrap; }
      .row { display: flex; gap: 8px; }
      [hidden] { display: none !important; }
    </style>
  </head>
  <body>
    <div class="card">
      <h1>Video Transcriber</h1>
      <h2>Powered by Groq</h2>

      <div id="step1" class="drop" hidden>
        <p>Drag and drop your video file here, or</p>
        <input id="picker" type="file" accept="video/*" hidden />
        <button id="choose">Choose File</button>
      </div>

      <div id="step2" hidden>
        <p>Selected file: <strong id="fileName"></strong></p>
        <button id="start">Start Transcription</button>
      </div>

      <div id="step3" hidden>
        <h3>Processing your video...</h3>
        <progress id="progress" max="100" value="0"></progress>
      </div>

      <div id="step4" hidden>
        <h3>Transcription Result</h3>
        <div id="result"></div>
        <div class="row">
          <button onclick="location.href='/api/workflow/subtitle/vtt'">Download VTT</button>
          <button onclick="location.href='/api/workflow/subtitle/srt'">Download SRT</button>
        </div>
        <button id="again">Transcribe another video</button>
      </div>
    </div>

    <script>
      const $ = (id) => document.getElementById(id);
      let lastAlert = sessionStorage.getItem('lastAlert');
      let polling = null;

      function render(wf) {
        for (let i = 1; i <= 4; i++) $('step' + i).hidden = wf.step !== i;
        $('fileName').textContent = wf.file_name || '';
        $('progress').value = wf.progress;
        $('result').textContent = wf.transcription || '';
        $('start').textContent = wf.engine_loaded ? 'Start Transcription' : 'Loading FFmpeg...';
        if (wf.alert && wf.alert !== lastAlert) alert(wf.alert);
        lastAlert = wf.alert;
        if (lastAlert) sessionStorage.setItem('lastAlert', lastAlert); else sessionStorage.removeItem('lastAlert');
        if (wf.step === 3 && !polling) polling = setInterval(refresh, 500);
        if (wf.step !== 3 && polling) { clearInterval(polling); polling = null; }
      }

      async function call(method, url, body) {
        const res = await fetch(url, { method, body });
        if (!res.ok) {
          const err = await res.json().catch(() => ({ detail: res.statusText }));
          alert('Error: ' + err.detail);
        }
        await refresh();
      }

      async function refresh() {
        const res = await fetch('/api/workflow');
        render(await res.json());
      }

      function upload(file) {
        const form = new FormData();
        form.append('file', file);
        call('POST', '/api/workflow/file', form);
      }

      const drop = $('step1');
      ['dragenter', 'dragover'].forEach((t) => drop.addEventListener(t, (e) => { e.preventDefault(); drop.classList.add('active'); }));
      drop.addEventListener('dragleave', (e) => { e.preventDefault(); drop.classList.remove('active'); });
      drop.addEventListener('drop', (e) => {
        e.preventDefault();
        drop.classList.remove('active');
        if (e.dataTransfer.files && e.dataTransfer.files[0]) upload(e.dataTransfer.files[0]);
      });
      $('choose').onclick = () => $('picker').click();
      $('picker').onchange = (e) => e.target.files[0] && upload(e.target.files[0]);
      $('start').onclick = async () => {
        $('start').disabled = true;
        try { await call('POST', '/api/workflow/start'); } finally { $('start').disabled = false; }
      };
      $('again').onclick = () => call('POST', '/api/workflow/reset');

      refresh();
      setInterval(() => { if (!polling) refresh(); }, 3000);
    </script>
  </body>
</html>
"""
